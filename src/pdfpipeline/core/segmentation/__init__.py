from .segmenter import CANCELLATION_CHECK_INTERVAL, Segmenter, to_segment_record

__all__ = ['CANCELLATION_CHECK_INTERVAL', 'Segmenter', 'to_segment_record']
