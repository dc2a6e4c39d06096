import argparse
import os
import sys
import time
from pathlib import Path

try:
    from watchdog.observers import Observer
    from watchdog.events import FileSystemEventHandler
    WATCHDOG_AVAILABLE = True
except ImportError:
    WATCHDOG_AVAILABLE = False

from .loader import get_wgsl_source
from .shader import generate_shader, make_shader, ShaderDiagnostics
from .uniforms import read_default_uniform_values, extract_view_parameters


def compile_file(source_path: str, output_path: str = None, print_ir: bool = False) -> bool:
    """Compiles one scene file to a complete WGSL shader. Returns False on errors."""
    with open(source_path, 'r') as f:
        text = f.read()

    result = generate_shader(text)
    if print_ir:
        print("Evaluated:", file=sys.stderr)
        for line in result.evaluated:
            print(f"  {line}", file=sys.stderr)

    if isinstance(result, ShaderDiagnostics):
        print(f"ERROR: Failed to compile '{Path(source_path).name}':", file=sys.stderr)
        print(result.format(), file=sys.stderr)
        return False

    shader = make_shader(get_wgsl_source('shader'), result.shader, result.uniform_slot_count)
    if output_path:
        with open(output_path, 'w') as f:
            f.write(shader)
        print(f"INFO: Wrote shader to '{output_path}'.", file=sys.stderr)
    else:
        sys.stdout.write(shader + "\n")

    defaults = read_default_uniform_values(text)
    view = extract_view_parameters(defaults)
    if view:
        print(f"INFO: Default view: {view}", file=sys.stderr)
    for name, offset in zip(result.uniform_names, result.uniform_offsets):
        default = defaults.get(name)
        value = f" = {default.value}" if default is not None else ""
        print(f"INFO: Uniform '{name}' at offset {offset}{value}", file=sys.stderr)
    return True


def watch(source_path: str, output_path: str = None, print_ir: bool = False):
    """Recompiles the scene each time the file changes, until interrupted."""
    if not WATCHDOG_AVAILABLE:
        print("ERROR: --watch requires `watchdog`. Run 'pip install watchdog'.", file=sys.stderr)
        return

    source_path = os.path.abspath(source_path)
    state = {'pending': False}

    class ChangeHandler(FileSystemEventHandler):
        def on_modified(self, event):
            if os.path.abspath(event.src_path) == source_path:
                state['pending'] = True

    observer = Observer()
    observer.schedule(ChangeHandler(), str(Path(source_path).parent), recursive=False)
    observer.daemon = True
    observer.start()
    print(f"INFO: Watching '{Path(source_path).name}' for changes...", file=sys.stderr)
    try:
        while True:
            time.sleep(0.25)
            if state['pending']:
                state['pending'] = False
                print(f"INFO: Change detected in '{Path(source_path).name}'. Recompiling...", file=sys.stderr)
                compile_file(source_path, output_path, print_ir)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()


def make_parser():
    parser = argparse.ArgumentParser(prog='sdflisp', description="Compile sdflisp scenes to WGSL shaders.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    compile_parser = subparsers.add_parser('compile', help="Compile a scene file to a WGSL shader")
    compile_parser.add_argument('source', help="Scene source file (.sdf)")
    compile_parser.add_argument('-o', '--output', dest='output',
        help="Write the shader to this file instead of stdout")
    compile_parser.add_argument('--watch', action='store_true',
        help="Recompile whenever the source file changes")
    compile_parser.add_argument('--print-ir', dest='print_ir', action='store_true',
        help="Print the evaluated top-level expressions")
    return parser


def main(argv=None) -> int:
    args = make_parser().parse_args(argv)
    if not os.path.exists(args.source):
        print(f"ERROR: File not found: '{args.source}'", file=sys.stderr)
        return 1
    ok = compile_file(args.source, args.output, args.print_ir)
    if args.watch:
        watch(args.source, args.output, args.print_ir)
    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
