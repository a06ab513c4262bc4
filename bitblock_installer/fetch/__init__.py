# Path and File Name : /home/bitblock/rebuild/bitblock_installer/fetch/__init__.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Fetch package initialization

"""
Fetch Package: Network retrieval of the pinned release.
"""

from .artifact_fetcher import ArtifactFetcher, FetchResult

__all__ = ['ArtifactFetcher', 'FetchResult']
