from vista.analysis.analyzer import SliceAnalyzer
from vista.analysis.base import BaseSliceAnalyzer
from vista.analysis.factory import AnalyzerFactory

__all__ = ["AnalyzerFactory", "BaseSliceAnalyzer", "SliceAnalyzer"]
