"""Sample sources for fhir_sync.

Each source implements the SampleSource ABC and turns a local health store
into RawSample records.

Available sources:
    AppleHealthExportSource — Apple Health ``export.xml`` file
"""

from fhir_sync.sources.apple_health import AppleHealthExportSource

__all__ = ["AppleHealthExportSource"]
