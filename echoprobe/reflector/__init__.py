from .reflector import Reflector, TcpReflector, UdpReflector

REFLECTOR_TYPES = {
    UdpReflector.proto: UdpReflector,
    TcpReflector.proto: TcpReflector,
}

__all__ = ["Reflector", "TcpReflector", "UdpReflector", "REFLECTOR_TYPES"]
