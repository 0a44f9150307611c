"""
Error taxonomy for Mr Tagger
Every engine failure is one of these; the command layer turns them into messages
"""


class TaggerError(Exception):
    """Base class for all engine errors"""
    user_message = 'Something went wrong'

    def __init__(self, message=None):
        super().__init__(message or self.user_message)


class FormatError(TaggerError, ValueError):
    """The bytes are not a valid or recognized tag container"""
    user_message = 'File is not a valid tag container'


class CorruptHeader(FormatError):
    user_message = 'Tag header is corrupt or unsupported'


class CorruptFrame(FormatError):
    user_message = 'Tag contains a corrupt frame'


class TruncatedFrame(FormatError):
    user_message = 'Tag data is truncated'


class UnknownEncoding(FormatError):
    """A text frame names an encoding byte outside the known set

    Carries the frame (already marked opaque) so a reader can keep it.
    """
    user_message = 'Text frame uses an unknown encoding'

    def __init__(self, message=None, frame=None):
        super().__init__(message)
        self.frame = frame


class EncodingNotAllowed(FormatError):
    user_message = 'Text encoding is not allowed in this tag version'


class UnsupportedImageFormat(TaggerError, ValueError):
    user_message = 'Unsupported image format (only PNG and JPEG are accepted)'


class UnknownField(TaggerError, ValueError):
    user_message = 'Unknown field'


class TagIOError(TaggerError, OSError):
    user_message = 'Could not read or write the file'


class SessionNotFound(TaggerError, KeyError):
    user_message = 'File is not open'

    def __str__(self):
        # KeyError would repr() the message
        return Exception.__str__(self)
