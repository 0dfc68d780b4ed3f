from __future__ import annotations


class ReportPipelineError(Exception):
    """Base class for everything the report pipeline can raise."""


class BatchDecodeError(ReportPipelineError):
    pass


class ContextResolutionError(ReportPipelineError):
    """The client context could not be built; the whole batch is unusable."""


class GeoLookupUnavailable(ContextResolutionError):
    pass


class UserAgentParseError(ContextResolutionError):
    pass


class AddressMaskError(ContextResolutionError):
    pass


class InvalidClientAddress(ContextResolutionError):
    pass


class SerializationError(ReportPipelineError):
    pass


class SinkError(ReportPipelineError):
    pass
