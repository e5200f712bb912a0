"""
Stock Kernel

The allocation core beneath the mobile stock transactions:
- Packing-unit / stock-unit conversion with explicit rounding
- Serial-number range arithmetic and overlap detection
- Quantity conservation across draft transaction lines
- Typed rejections for every refused commit
"""

__version__ = "0.1.0"
