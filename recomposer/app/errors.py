class AppError(Exception):
    """Base application error"""


class ConfigError(AppError):
    """Missing or invalid configuration"""


class MissingInputError(AppError):
    """Required geometric model or container is absent"""


class ScanError(AppError):
    """Raster could not be read for optical scanning"""


class GeneratorError(AppError):
    """Strategy or preview generator call failed"""


class GeneratorTimeout(GeneratorError):
    """Generator did not answer within the configured timeout"""


class StrategyParseError(GeneratorError):
    """Generator answered but the output did not parse into a Strategy"""


class RenderError(AppError):
    """A layer could not be drawn onto the audit composite"""
