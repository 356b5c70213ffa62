"""ScopeStack content engine: research-to-scope generation pipeline"""

__version__ = "1.0.0"
