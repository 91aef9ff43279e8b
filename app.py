"""Entry point for cncpad

Starts the numpad reader, the control-server connection and the jog
scheduler, using options from the command line and option files.
"""
import argparse
import logging
import threading

from serial.tools import list_ports

import config
from core.errors import DeviceNotFoundError, PendantError
from core.scheduler import Dispatcher
from devices.numpad import NumpadReader, find_numpad, list_devices
from gcode.dialects import create_adapter
from jog import JogScheduler
from mapper import KeyMotionMapper
from server.auth import resolve_secret
from server.connector import ConnectionManager

LOG = logging.getLogger("cncpad")

VERSION = "1.0.0"
VERBOSITY = {0: "WARNING", 1: "INFO"}


def _hex(text):
    return int(text, 0)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="cncpad",
        description="Use a USB numpad as a pendant for a CNC control server.",
        usage="%(prog)s [options] [run|simulate]",
    )
    parser.add_argument("mode", nargs="?", default="run", choices=["run", "simulate"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-p", "--port", help="path or name of serial port")
    parser.add_argument("-b", "--baudrate", type=int, help="baud rate (default: 115200)")
    parser.add_argument("--controller-type", help="controller type: Grbl|Marlin (default: Grbl)")
    parser.add_argument("-s", "--secret", help="the secret key stored in ~/.cncrc")
    parser.add_argument("--socket-address", help="socket address or hostname (default: localhost)")
    parser.add_argument("--socket-port", type=int, help="socket port (default: 8000)")
    parser.add_argument("--access-token-lifetime",
                        help="access token lifetime in seconds or a time span like 30d (default: 30d)")
    parser.add_argument("--vendor-id", type=_hex, help="vendor ID of the USB HID numpad")
    parser.add_argument("--product-id", type=_hex, help="product ID of the USB HID numpad")
    parser.add_argument("--z-probe-thickness", type=float, help="thickness of the Z probe plate in mm")
    parser.add_argument("--default-feedrate", type=float, help="jog speed in mm/min (default: 2000)")
    parser.add_argument("--jog-interval", dest="jog_interval_ms", type=int,
                        help="period in ms between jog commands (default: 150)")
    parser.add_argument("--jog-mode", choices=list(config.JOG_MODES), help="continuous or step jogging")
    parser.add_argument("--profile", help="YAML key-binding profile")
    parser.add_argument("--config", help="extra YAML options file")
    parser.add_argument("-l", "--list", action="store_true", help="list available serial ports then exit")
    parser.add_argument("-d", "--devicelist", action="store_true", help="list available HID devices then exit")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="display verbose messages; repeat to increase verbosity")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="logging level (overrides -v)")
    parser.add_argument("--log-format", default="%(asctime)s %(levelname)s:%(name)s:%(message)s",
                        help="logging format string")
    parser.add_argument("--debug-modules", nargs="*", default=[],
                        help="modules to set to DEBUG level (e.g. 'jog', 'connector', 'grbl', 'numpad')")
    return parser


def configure_logging(args):
    level = args.log_level or VERBOSITY.get(args.verbose, "DEBUG")
    logging.basicConfig(level=getattr(logging, level), format=args.log_format)
    for module in args.debug_modules:
        logging.getLogger(f"cncpad.{module}").setLevel(logging.DEBUG)


def print_serial_ports():
    LOG.info("looking for serial ports")
    for port in list_ports.comports():
        print(port.device)


def print_hid_devices(vendor_id=None, product_id=None):
    if vendor_id and product_id:
        info = find_numpad(vendor_id, product_id, interface=None)
        devices = [info] if info else []
    else:
        devices = list_devices()
    for info in devices:
        print(f"Manufacturer: {info.get('manufacturer_string')}")
        print(f"VendorId: 0x{info.get('vendor_id', 0):04x} ({info.get('vendor_id')})")
        print(f"ProductId: 0x{info.get('product_id', 0):04x} ({info.get('product_id')})")
        print(f"Interface: {info.get('interface_number')}")
        print(f"Path: {info.get('path')}")
        print("----------------------")


def cli_values(args) -> dict:
    values = {k: v for k, v in vars(args).items() if v is not None}
    values["simulate"] = True if args.mode == "simulate" else None
    return values


def build(options, dispatcher):
    """Wire reader -> connector -> adapter -> scheduler."""
    if not options.simulate and find_numpad(options.vendor_id, options.product_id) is None:
        raise DeviceNotFoundError("no numpad found; check --vendor-id/--product-id (see --devicelist)")
    reader = NumpadReader(options.vendor_id, options.product_id)
    connector = ConnectionManager(reader, options, dispatcher)
    adapter = create_adapter(options, connector)
    if options.profile:
        mapper = KeyMotionMapper.load_profile(options.profile, z_factor=options.z_speed_factor)
    else:
        mapper = KeyMotionMapper(z_factor=options.z_speed_factor)
    jog = JogScheduler(
        adapter, connector, dispatcher, mapper,
        jog_speed=options.default_feedrate,
        interval_ms=options.jog_interval_ms,
        mode=options.jog_mode,
    )
    reader.subscribe("use", lambda event: dispatcher.post(jog.on_key, event))
    return reader, connector, jog


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args)

    if args.list:
        print_serial_ports()
        return 0
    if args.devicelist:
        print_hid_devices(args.vendor_id, args.product_id)
        return 0

    dispatcher = Dispatcher()
    try:
        options = config.load_options(cli_values(args), args.config)
        options.secret = resolve_secret(options)
        reader, connector, jog = build(options, dispatcher)
    except (PendantError, OSError, ValueError) as e:
        LOG.error("%s", e)
        return 1

    LOG.info("using controller %s on %s, feedrate %s mm/min, Z probe thickness %s mm",
             options.controller_type, options.port, options.default_feedrate, options.z_probe_thickness)

    stop_event = threading.Event()
    try:
        dispatcher.start()
        reader.start()
        print("cncpad is running. Stop with Control-C")
        while not stop_event.is_set():
            stop_event.wait(0.5)
    except KeyboardInterrupt:
        LOG.info("shutdown requested")
    finally:
        reader.stop()
        dispatcher.stop()
        jog.stop()
        connector.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
