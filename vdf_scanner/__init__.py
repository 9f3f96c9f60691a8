"""
VDF Scanner - Volume Divergence Flag
Hidden accumulation detection from 1-minute volume delta
"""

__version__ = '1.0.0'
