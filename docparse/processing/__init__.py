from docparse.processing.chunking import Chunk, Chunker, ChunkingOptions, achunk, chunk

__all__ = ["Chunk", "Chunker", "ChunkingOptions", "achunk", "chunk"]
