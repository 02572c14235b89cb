from .time_normalizer import TimeNormalizer, minutes_between, seconds_between, hour_in_window

__all__ = ['TimeNormalizer', 'minutes_between', 'seconds_between', 'hour_in_window']
