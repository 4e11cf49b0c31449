import os
import signal
import sys
import threading
import warnings

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

from argparse import ArgumentParser

from mandelbrot import (
    ImageSize,
    MandelbrotError,
    Parameters,
    RenderOptions,
    Viewport,
    default_parameters,
    default_workers,
    generate,
    save_image,
)

DEFAULT_OUTPUT = "mandelbrot.png"


def build_parser():
    defaults = default_parameters()
    parser = ArgumentParser(description="Render a supersampled Mandelbrot still frame.")

    parser.add_argument('--x-min', type=float,
                        dest='x_min', help='left edge of the viewport in the complex plane',
                        metavar='X_MIN', default=defaults.viewport.x_min)

    parser.add_argument('--y-min', type=float,
                        dest='y_min', help='lower edge of the viewport in the complex plane',
                        metavar='Y_MIN', default=defaults.viewport.y_min)

    parser.add_argument('--x-max', type=float,
                        dest='x_max', help='right edge of the viewport in the complex plane',
                        metavar='X_MAX', default=defaults.viewport.x_max)

    parser.add_argument('--y-max', type=float,
                        dest='y_max', help='upper edge of the viewport in the complex plane',
                        metavar='Y_MAX', default=defaults.viewport.y_max)

    parser.add_argument('--width', type=int,
                        dest='width', help='image width in pixels',
                        metavar='WIDTH', default=defaults.size.width)

    parser.add_argument('--height', type=int,
                        dest='height', help='image height in pixels',
                        metavar='HEIGHT', default=defaults.size.height)

    parser.add_argument('--samples', type=int,
                        dest='samples', help='number of sub-pixel samples (the sampling pattern is fixed at 4 points)',
                        metavar='SAMPLES', default=defaults.render_opts.sub_pixel_samples)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='escape-time iteration bound (counted in 8 bits)',
                        metavar='MAX_ITERATIONS', default=defaults.render_opts.max_iterations)

    parser.add_argument('--contrast', type=int,
                        dest='contrast', help='scaling factor applied to the escape count when coloring',
                        metavar='CONTRAST', default=defaults.render_opts.contrast)

    parser.add_argument('--workers', type=int,
                        dest='workers', help='number of rows rendered concurrently. Default: CPU count.',
                        metavar='WORKERS', default=None)

    parser.add_argument('--output', dest='output', type=str,
                        help='destination image file. Default: "%s".' % DEFAULT_OUTPUT,
                        default=DEFAULT_OUTPUT)

    parser.add_argument('--format', type=str,
                        dest='format', help='lossless image format (png, tiff, bmp, webp). Default: taken from --output.',
                        metavar='FORMAT', default=None)

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow diagnostics and row progress.')

    return parser


def parameters_from_args(opt) -> Parameters:
    return Parameters(
        viewport=Viewport(x_min=opt.x_min, y_min=opt.y_min, x_max=opt.x_max, y_max=opt.y_max),
        size=ImageSize(width=opt.width, height=opt.height),
        render_opts=RenderOptions(
            sub_pixel_samples=opt.samples,
            max_iterations=opt.max_iterations,
            contrast=opt.contrast,
        ),
    )


def render_image(argv=None):
    """Parse ``argv``, render the frame and return the written image path."""

    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    log("TensorFlow version: %s" % tf.__version__)

    params = parameters_from_args(opt)
    workers = opt.workers if opt.workers is not None else default_workers()
    height = params.size.height
    log("Rendering %dx%d with %d workers" % (params.size.width, height, workers))

    cancel_event = threading.Event()
    in_main_thread = threading.current_thread() is threading.main_thread()
    if in_main_thread:
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())

    completed = 0

    def on_row_done(row):
        nonlocal completed
        completed += 1
        log("row {0} out of {1}".format(completed, height), end='\r')

    try:
        pixels = generate(params, cancel_event=cancel_event, workers=workers, on_row_done=on_row_done)
        log("")
        output_path = save_image(pixels, opt.output, opt.format)
    except MandelbrotError as exc:
        parser.exit(1, "error: %s\n" % exc)
    finally:
        if in_main_thread:
            signal.signal(signal.SIGINT, signal.default_int_handler if previous_handler is None else previous_handler)

    log("Saved %s" % output_path)
    return output_path


def main(argv=None):
    render_image(argv)


if __name__ == '__main__':
    main()
