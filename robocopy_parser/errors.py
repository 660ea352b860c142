"""Fatal parser errors. Everything recoverable is a warning on the document."""


class RobocopyParserError(Exception):
    """Base class for errors that prevent producing any document."""


class EncodingError(RobocopyParserError):
    """Input is empty, binary, or cannot be decoded with the requested codec."""


class LogParseError(RobocopyParserError):
    """Decoded text carries no recognizable Robocopy structure at all."""
