class ExporterError(RuntimeError):
    pass


class IriApiError(ExporterError):
    pass


class FeedUnavailable(ExporterError):
    pass


class ExporterConfigError(Exception):
    pass
