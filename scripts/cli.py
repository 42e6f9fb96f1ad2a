"""
CLI for the screen emotion monitor.

Usage:
    python -m scripts.cli run                  # headless monitoring, prints log records
    python -m scripts.cli serve --port 8000    # HTTP API (uvicorn api.main:app)
    python -m scripts.cli snapshot --out output/snapshot.png
"""
from __future__ import annotations
import argparse, json, logging, os, time

import cv2

from instructor.capture import ScreenCapture
from instructor.config import Settings
from instructor.errors import InstructorError, StartupResourceError
from instructor.monitor import MonitoringSession, load_resources
from instructor.visual import draw_verdicts


def _format(record) -> str:
    parts = [record.timestamp, f"face={record.face_index}", record.classification]
    details = [v for v in (record.primary_label, record.secondary_label, record.model_used, record.fused_label) if v]
    if details:
        parts.append(" | ".join(details))
    return "  ".join(parts)


def cmd_run(args, settings: Settings) -> int:
    session = MonitoringSession(settings)
    try:
        session.start()
    except StartupResourceError as e:
        print(f"Failed to start monitoring: {e}")
        return 1
    if args.detailed:
        session.toggle_detailed_logging()

    last = None
    alert_shown = False
    try:
        while True:
            time.sleep(0.5)
            # log is newest-first; print everything above the last printed record
            records = session.records()
            new = []
            for r in records:
                if r is last:
                    break
                new.append(r)
            for r in reversed(new):
                print(_format(r))
            if records:
                last = records[0]

            st = session.status()
            if st.alert_active and not alert_shown:
                print(f"!!! ALERT: {st.needs_help_count} Needs Help classifications")
            alert_shown = st.alert_active
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()
    return 0


def cmd_serve(args, settings: Settings) -> int:
    import uvicorn
    uvicorn.run("api.main:app", host=args.host, port=args.port, log_level=settings.LOG_LEVEL.lower())
    return 0


def cmd_snapshot(args, settings: Settings) -> int:
    try:
        locator, classifier = load_resources(settings)
    except StartupResourceError as e:
        print(f"Failed to load models: {e}")
        return 1
    try:
        frame = ScreenCapture(settings.MONITOR_INDEX).capture_frame()
        faces = locator.locate(frame)
        verdicts = []
        for face in faces:
            try:
                verdicts.append(classifier.classify(face.pixel_data))
            except InstructorError:
                logging.getLogger(__name__).exception("[cli] classification failed")
                verdicts.append(None)
    except InstructorError as e:
        print(f"Snapshot failed: {e}")
        return 1
    finally:
        classifier.close()
        locator.close()

    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    cv2.imwrite(args.out, draw_verdicts(frame, faces, verdicts))
    result = [
        {"face": i, "x": f.x, "y": f.y, "w": f.width, "h": f.height,
         **(v.model_dump() if v else {"classification": "ERROR"})}
        for i, (f, v) in enumerate(zip(faces, verdicts), start=1)
    ]
    print(json.dumps(result, indent=2, ensure_ascii=False))
    print(f"Annotated snapshot written to {args.out}")
    return 0


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Screen emotion monitor")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Monitor the screen and print log records")
    run.add_argument("--detailed", action="store_true", help="Include per-model labels in records")

    serve = sub.add_parser("serve", help="Serve the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    snap = sub.add_parser("snapshot", help="Classify one screen capture and write an annotated image")
    snap.add_argument("--out", default="output/snapshot.png", help="Path to output PNG")

    args = p.parse_args(argv)
    settings = Settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    handlers = {"run": cmd_run, "serve": cmd_serve, "snapshot": cmd_snapshot}
    return handlers[args.command](args, settings)

if __name__ == "__main__":
    raise SystemExit(main())
