#!/usr/bin/env python3
"""
Test script for EchoProbe installation and basic functionality.
"""

import importlib
import socket
import sys
from pathlib import Path

REQUIRED_MODULES = [
    'numpy',
    'toml',
    'click',
    'echoprobe',
]


def test_imports():
    """Test if all required modules can be imported."""
    print("Testing module imports...")

    failed_imports = []

    for module in REQUIRED_MODULES:
        try:
            importlib.import_module(module)
            print(f"  + {module}")
        except ImportError as e:
            print(f"  - {module}: {e}")
            failed_imports.append(module)

    assert not failed_imports, f"Failed to import: {', '.join(failed_imports)}"
    print("  All required modules imported successfully!")


def test_config_file():
    """Test configuration file loading."""
    print("\nTesting configuration...")

    from echoprobe.core.config import Config

    config_path = Path(__file__).parent / "config.toml"
    if not config_path.exists():
        print("  config.toml not found, using example config")
        config_path = Path(__file__).parent / "config.toml.example"

    assert config_path.exists(), "No configuration file found"

    config = Config.from_file(config_path)
    config.validate()
    print(f"  + reflectors: {', '.join(config.reflector.protocols)} on port {config.reflector.port}")
    print("  Configuration file loaded successfully!")


def test_loopback_probe():
    """Test a probe against local UDP and TCP reflectors."""
    print("\nTesting loopback probes...")

    from echoprobe.core.config import ReflectorConfig
    from echoprobe.probe.sender import send_timed_packet
    from echoprobe.reflector import REFLECTOR_TYPES

    for proto, reflector_type in REFLECTOR_TYPES.items():
        reflector = reflector_type(ReflectorConfig(protocol=proto, port=0, host='127.0.0.1'))
        reflector.start()
        try:
            rtt = send_timed_packet('127.0.0.1', reflector.port, 2, protocol=proto)
            print(f"  + {proto} rtt {rtt:.3f} ms")
            assert rtt > 0
        finally:
            reflector.stop()


def test_reflector_port_free():
    """Report whether the default reflector port is free on this host."""
    print("\nTesting default reflector port...")

    from echoprobe.core.config import DEFAULT_PORT

    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.bind(('0.0.0.0', DEFAULT_PORT))
            print(f"  + udp port {DEFAULT_PORT} is free")
        except OSError as e:
            print(f"  ! udp port {DEFAULT_PORT} unavailable ({e}); reflectors need another port")


def main():
    """Run all tests."""
    print("EchoProbe Installation Test")
    print("=" * 40)

    tests = [
        ("Module Imports", test_imports),
        ("Configuration", test_config_file),
        ("Loopback Probe", test_loopback_probe),
        ("Reflector Port", test_reflector_port_free),
    ]

    results = []

    for test_name, test_func in tests:
        try:
            test_func()
            results.append((test_name, True))
        except Exception as e:
            print(f"  - {test_name} test failed: {e}")
            results.append((test_name, False))

    print("\n" + "=" * 40)
    print("Test Results Summary")
    print("=" * 40)

    passed = 0
    total = len(results)

    for test_name, result in results:
        status = "PASS" if result else "FAIL"
        print(f"{test_name:20} {status}")
        if result:
            passed += 1

    print(f"\nPassed: {passed}/{total}")

    if passed == total:
        print("\nAll tests passed! EchoProbe should work correctly.")
        return 0
    else:
        print(f"\n{total - passed} test(s) failed. Please check the issues above.")
        return 1


if __name__ == '__main__':
    sys.exit(main())
