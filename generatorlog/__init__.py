"""
GeneratorLog - generator runtime tracking and maintenance reminders
"""

__version__ = "1.0.0"
