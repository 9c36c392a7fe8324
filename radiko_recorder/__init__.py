"""
radiko-recorder: records radiko live and timefree programmes over HLS.
"""

__version__ = "0.3.0"
