"""
DATA модуль - чтение входных файлов съёмки и запись результатов.
"""

from .data_provider import DataProvider
from .ancillary_writer import AncillaryWriter

__all__ = [
    'DataProvider',
    'AncillaryWriter',
]
