# engine/cli/heapdump.py
from __future__ import annotations
import argparse, sys, traceback
from typing import List, Optional, TextIO

from storage.errors import PageDecodeError, PageReadError
from storage.heap_page import PAGE_HEADER_SIZE, PAGE_SIZE, SlotState
from storage.pager import HeapFile
from engine.inspector import HeapInspector, PageDump, SlotResult

USAGE_EXAMPLE = "heapdump --file /path/to/base/16384/16567 --page 0 [--no-demo]"


# ---------- 报告格式 ----------
def format_slot(r: SlotResult, demo: bool) -> List[str]:
    s = r.slot
    head = f" [{s.index:2d}] lp_off={s.offset:4d} lp_len={s.length:3d} flags={int(s.state)} ({s.state.name})"
    if s.state != SlotState.NORMAL:
        return [head]
    lines = [head]
    th = r.tuple_header
    if th is None:
        lines.append(f"      ERROR: {_describe(r.error)}")
        return lines
    lines.append(
        f"      xmin={th.xmin} xmax={th.xmax} ctid=({th.ctid_block},{th.ctid_offset}) "
        f"natts={th.natts} hoff={th.hoff} infomask=0x{th.infomask:04x} infomask2=0x{th.infomask2:04x}")
    if r.error is not None:
        lines.append(f"      decode demo row: {_describe(r.error)}")
    elif demo and r.record is not None:
        vals = ", ".join(f"{k}={_fmt_value(v)}" for k, v in r.record.as_dict().items())
        lines.append(f"      demo: {vals}")
    return lines


def format_page(dump: PageDump, demo: bool = True) -> List[str]:
    h = dump.header
    out = [
        f"== Page {dump.page_no} ==",
        f"pd_lower={h.lower} pd_upper={h.upper} pd_special={h.special}  | free={h.free_space} bytes",
        f"lsn=({h.xlogid},{h.xrecoff}) checksum={h.checksum} flags=0x{h.flags:04x} "
        f"pagesize_ver={h.pagesize_version} prune_xid={h.prune_xid}",
        f"line pointers: {len(dump.results)}",
    ]
    for r in dump.results:
        out.extend(format_slot(r, demo))
    return out


def _describe(err: Optional[BaseException]) -> str:
    return f"{type(err).__name__}: {err}" if err is not None else "unknown error"


def _fmt_value(v) -> str:
    if v is None:
        return "NULL"
    if isinstance(v, str):
        return repr(v)
    return str(v)


# ---------- 入口 ----------
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="heapdump", description="8KiB 堆页解析工具（页头 / 行指针 / 元组头 / 示例列）",
                                 epilog=f"示例: {USAGE_EXAMPLE}")
    ap.add_argument("--file", required=True, help="关系文件路径（例如 base/DBOID/RELOID）")
    ap.add_argument("--page", type=int, default=0, help="起始页号（从 0 开始，默认 0）")
    ap.add_argument("--count", type=int, default=1, help="连续解析的页数（默认 1）")
    ap.add_argument("--all", action="store_true", help="解析文件中的全部页（忽略 --page/--count）")
    ap.add_argument("--no-demo", dest="demo", action="store_false", help="不解析示例列（id BIGINT, name TEXT）")
    ap.add_argument("--workers", type=int, default=1, help="并行解码的线程数（默认 1）")
    ap.add_argument("--page-size", type=int, default=PAGE_SIZE, help=f"页大小（默认 {PAGE_SIZE}）")
    ap.add_argument("--log", nargs="?", const="", default=None, metavar="PATH",
                    help="把解析事件写入日志文件（缺省路径 __logs__/heapdump.log）")
    ap.add_argument("--stats", action="store_true", help="结束时打印统计")
    ap.add_argument("--debug", action="store_true", help="显示详细报错堆栈")
    return ap


def run(args: argparse.Namespace, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    if args.log is not None:
        HeapInspector.enable_global_log(args.log or None)

    with HeapFile(args.file, page_size=args.page_size) as hf:
        inspector = HeapInspector(hf, decode_rows=args.demo)
        if args.all:
            page_nos = range(hf.page_count())
        else:
            page_nos = range(args.page, args.page + args.count)

        status = 0
        for pid, res in inspector.iter_pages(page_nos, workers=args.workers):
            if isinstance(res, PageDump):
                print("\n".join(format_page(res, args.demo)), file=out)
            else:
                print(f"error: page {pid}: {_describe(res)}", file=err)
                status = 1
        if args.stats:
            inspector.report_stats(out)
    return status


def main(argv=None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if not args.file:
        ap.print_usage(sys.stderr)
        return 2
    if args.count < 1 or args.page < 0 or args.workers < 1 or args.page_size < PAGE_HEADER_SIZE:
        ap.error(f"--page must be >= 0, --count and --workers must be >= 1, "
                 f"--page-size must be >= {PAGE_HEADER_SIZE}")

    try:
        return run(args)
    except (OSError, PageDecodeError, PageReadError) as e:
        if args.debug:
            traceback.print_exc()
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        if args.log is not None:
            HeapInspector.disable_global_log()


if __name__ == "__main__":
    sys.exit(main())
