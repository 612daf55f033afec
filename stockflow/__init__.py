"""
StockFlow - order & stock transaction engine
"""
__version__ = "1.0.0"
