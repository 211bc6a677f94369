"""Solar panel line tracking: barcode intake, station workflow and MO progress."""

__version__ = "0.1.0"
