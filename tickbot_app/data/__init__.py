"""
Market data module.

Decodes raw venue frames into tagged frame types at the connection boundary
and turns tick frames into immutable ticks with their last digit.
"""
