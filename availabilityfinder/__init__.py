"""
availabilityfinder - free working time across a person's calendars.
"""

__version__ = "0.1.0"
