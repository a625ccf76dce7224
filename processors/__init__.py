"""File processors. The PDF processor is loaded on demand by the factory."""

from processors.base import BaseProcessor
from processors.factory import ProcessorFactory
from processors.image import ImageProcessor

__all__ = ['BaseProcessor', 'ProcessorFactory', 'ImageProcessor']
