class ApplicationError(Exception):
    status_code = 500


class ConfigurationError(ApplicationError):
    pass


class EmptyBodyError(ApplicationError):
    status_code = 400


class UnsupportedMediaTypeError(ApplicationError):
    status_code = 415


class DecodeError(ApplicationError):
    status_code = 400


class EncodeError(ApplicationError):
    pass
