# coding=utf-8


class DecodingOptions:
    """
    Knobs for binary decoding.

    message_depth_limit bounds how deeply messages and groups may nest inside
    the data being decoded; exceeding it raises MessageDepthLimitError.

    discard_unknown_fields drops unrecognized fields for this decode even when
    the message type would otherwise preserve them.
    """
    __slots__ = ('message_depth_limit', 'discard_unknown_fields',)

    def __init__(
            self,
            *,
            message_depth_limit=100,
            discard_unknown_fields=False,
    ):
        if message_depth_limit < 1:
            raise ValueError('message_depth_limit must be at least 1')
        self.message_depth_limit = message_depth_limit
        self.discard_unknown_fields = discard_unknown_fields

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return (
                other.message_depth_limit == self.message_depth_limit and
                other.discard_unknown_fields == self.discard_unknown_fields
        )

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'message_depth_limit={self.message_depth_limit!r}, '
            f'discard_unknown_fields={self.discard_unknown_fields!r})'
        )


class EncodingOptions:
    """
    Knobs for binary encoding.

    use_deterministic_ordering sorts map entries by key so that equal messages
    always serialize to identical bytes.
    """
    __slots__ = ('use_deterministic_ordering',)

    def __init__(self, *, use_deterministic_ordering=False):
        self.use_deterministic_ordering = use_deterministic_ordering

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return (
                other.use_deterministic_ordering ==
                self.use_deterministic_ordering
        )

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'use_deterministic_ordering='
            f'{self.use_deterministic_ordering!r})'
        )


DEFAULT_DECODING_OPTIONS = DecodingOptions()
DEFAULT_ENCODING_OPTIONS = EncodingOptions()
