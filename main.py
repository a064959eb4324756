import argparse
import logging
import sys

import config
import image_processor
from ambilight_controller import AmbilightController, StopSignal
from errors import ConfigError, DeviceUnreachable, LampError
from lamp_connection import LampConnection
from lamp_fleet import LampFleet, load_addresses, parse_addresses
from screen_capture import ScreenCapturer

EXIT_OK = 0
EXIT_LAMP_ERROR = 1
EXIT_CONFIG_ERROR = 2

UNREACHABLE_HINT = (
    "Check the lamp's IP address and that it is powered on. "
    "This computer must be on the same network as the lamp."
)
MALFORMED_HINT = (
    "The device answered but not like a lamp would. "
    "Make sure the address belongs to a lamp and not another device."
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Match smart lamps to the average color of the screen."
    )
    parser.add_argument(
        "hosts",
        nargs="*",
        help="Lamp hosts (host or host:port). Overrides --lamps.",
    )
    parser.add_argument(
        "--lamps",
        default=config.LAMPS_FILE,
        help=f"Newline-delimited lamp list (default: {config.LAMPS_FILE})",
    )
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument(
        "--coverage",
        type=float,
        dest="coverage_percent",
        help=f"Minimum non-black pixel percentage (default: {config.DEFAULT_COVERAGE_PERCENT})",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        dest="variation_threshold",
        help=f"Minimum color change before resending (default: {config.DEFAULT_VARIATION_THRESHOLD})",
    )
    parser.add_argument("--stride", type=int, help="Sum only every Nth kept pixel")
    parser.add_argument(
        "--fps", type=float, dest="max_fps", help="Tick rate cap, 0 for unthrottled"
    )
    parser.add_argument("--sampler", choices=sorted(image_processor.SAMPLERS))
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each lamp reply")
    parser.add_argument(
        "--capture-width", type=int, help="Downscale frames to this width before sampling"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def load_configuration(args):
    """Resolve settings and lamp addresses. Raises ConfigError."""
    settings = config.load_settings(args.config).override(
        coverage_percent=args.coverage_percent,
        variation_threshold=args.variation_threshold,
        stride=args.stride,
        max_fps=args.max_fps,
        sampler=args.sampler,
        timeout=args.timeout,
        capture_width=args.capture_width,
    )

    if args.hosts:
        addresses = parse_addresses(args.hosts)
        if not addresses:
            raise ConfigError("No lamp addresses given on the command line")
    else:
        addresses = load_addresses(args.lamps)
    return settings, addresses


def report_lamp_error(error: LampError):
    print(f"[LAMP] Lamp {error.address} failed: {error.detail}")
    if isinstance(error, DeviceUnreachable):
        print(UNREACHABLE_HINT)
    else:
        print(MALFORMED_HINT)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings, addresses = load_configuration(args)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        connection = LampConnection(timeout=settings.timeout)
    except OSError as e:
        print(f"[LAMP] Could not open a UDP socket: {e}")
        return EXIT_LAMP_ERROR

    with connection:
        try:
            fleet = LampFleet(connection, addresses)
            capturer = ScreenCapturer(resize_width=settings.capture_width)
            controller = AmbilightController(capturer, fleet, settings)

            print("[LAMP] Getting initial states...")
            controller.start()
            print(f"[LAMP] Captured {len(controller.fleet_state)} lamp(s)")

            controller.should_stop = StopSignal().install()
            print("[CAPTURE] Running. Press Ctrl+C to stop and restore the lamps.")
            controller.run()
        except ConfigError as e:
            print(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR
        except LampError as e:
            report_lamp_error(e)
            return EXIT_LAMP_ERROR

    print("[LAMP] Lamps restored. Byebye!")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
