"""imagegen backend package.

Credit purchase, payment confirmation and balance bookkeeping for the
image generation service.
"""

__version__ = '0.4.0'
