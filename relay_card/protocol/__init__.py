"""Protocol layer: command codes, frame encoding and answer decoding."""
