#!/usr/bin/env python3
"""
EchoProbe command line: run reflectors, send one probe, or watch a target.
"""

import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

import click

from .agent import Agent
from .core.config import PROTOCOLS, Config, ProbeWorkerConfig
from .core.errors import EchoProbeError
from .core.logger import get_logger, setup_logging
from .core.timing import make_filler
from .probe.sender import send_timed_packet
from .probe.worker import ProbeWorker

logger = get_logger("cli")


def signal_handler(signum, frame):
    """Turn SIGTERM into the same shutdown path as Ctrl-C."""
    logger.info(f"Received signal {signum}, shutting down...")
    raise KeyboardInterrupt


def load_config(config: Optional[str]) -> Config:
    if config is None:
        return Config.default()
    config_path = Path(config)
    if not config_path.exists():
        raise click.ClickException(f"Configuration file {config} not found")
    cfg = Config.from_file(config_path)
    cfg.validate()
    return cfg


@click.group()
@click.option('--config', '-c', default=None, help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool):
    """EchoProbe - reflector-based round-trip latency probes"""
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        cfg = load_config(config)
    except ValueError as e:
        raise click.ClickException(str(e))

    log_level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper())
    setup_logging(cfg.logging, log_level)

    ctx.obj = cfg


@main.command()
@click.pass_obj
def reflect(cfg: Config):
    """Run the configured reflectors until interrupted."""
    agent = Agent(cfg)
    try:
        agent.start()
    except EchoProbeError as e:
        raise click.ClickException(str(e))

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping reflectors...")
    finally:
        agent.shutdown()


@main.command()
@click.argument('target')
@click.option('--port', '-p', type=int, default=None, help='Reflector port')
@click.option('--protocol', type=click.Choice(PROTOCOLS), default=None)
@click.option('--timeout', '-t', type=float, default=None, help='Seconds to wait for the echo')
@click.option('--size', '-s', type=int, default=None, help='Payload size in bytes')
@click.pass_obj
def ping(cfg: Config, target: str, port: Optional[int], protocol: Optional[str],
         timeout: Optional[float], size: Optional[int]):
    """Send one timed probe to TARGET and print the round-trip time."""
    options = _worker_options(cfg, target, port, protocol, timeout, size)
    try:
        rtt = send_timed_packet(
            options.target,
            options.port,
            options.timeout,
            make_filler(options.payload_size),
            protocol=options.protocol,
        )
    except EchoProbeError as e:
        raise click.ClickException(str(e))

    click.echo(f"{options.protocol}://{target}:{options.port} rtt={rtt:.3f} ms")


@main.command()
@click.argument('target')
@click.option('--port', '-p', type=int, default=None, help='Reflector port')
@click.option('--protocol', type=click.Choice(PROTOCOLS), default=None)
@click.option('--timeout', '-t', type=float, default=None, help='Seconds to wait for each echo')
@click.option('--size', '-s', type=int, default=None, help='Payload size in bytes')
@click.option('--interval', '-i', type=float, default=None, help='Seconds between probes')
@click.option('--duration', '-d', type=float, default=60.0, show_default=True,
              help='Seconds to run before printing the summary')
@click.pass_obj
def watch(cfg: Config, target: str, port: Optional[int], protocol: Optional[str],
          timeout: Optional[float], size: Optional[int], interval: Optional[float],
          duration: float):
    """Probe TARGET on an interval and print a summary as JSON."""
    options = _worker_options(cfg, target, port, protocol, timeout, size, interval)
    try:
        worker = ProbeWorker(options)
    except ValueError as e:
        raise click.ClickException(str(e))

    worker.start()
    try:
        time.sleep(duration)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        worker.stop()
        worker.join(options.timeout + 1)

    click.echo(json.dumps(worker.summary(), indent=2))


def _worker_options(cfg: Config, target, port, protocol, timeout, size,
                    interval=None) -> ProbeWorkerConfig:
    return ProbeWorkerConfig(
        target=target,
        port=port or 0,
        interval=interval or 0,
        timeout=timeout or 0,
        payload_size=size or 0,
        protocol=protocol or "",
    ).with_defaults(cfg.worker)


if __name__ == '__main__':
    sys.exit(main())
