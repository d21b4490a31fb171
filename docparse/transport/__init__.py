from docparse.transport.http import HttpTransport, TransportResponse

__all__ = ["HttpTransport", "TransportResponse"]
