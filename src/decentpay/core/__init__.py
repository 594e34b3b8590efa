"""
DecentPay core: configuration, logging, error taxonomy and amount units.
"""
