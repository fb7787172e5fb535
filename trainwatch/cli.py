import argparse
import asyncio
import json
import sys
from pathlib import Path

from trainwatch.adapters.api.client import TrainingApiClient
from trainwatch.config.settings import settings
from trainwatch.core.lifecycle import LifecycleController
from trainwatch.core.machine import UnifiedStatus
from trainwatch.core.state import StatusKind
from trainwatch.schemas.models import TrainingStartRequest


def _fmt_status(st: UnifiedStatus) -> str:
    if st.kind is StatusKind.TRAINING and st.progress is not None:
        p = st.progress
        parts = [f"{p.fraction_complete * 100:5.1f}%"]
        if p.steps_total:
            parts.append(f"step {p.steps_done}/{p.steps_total}")
        if p.loss_value is not None:
            parts.append(f"loss {p.loss_value:.4f}")
        if p.eta_seconds is not None:
            parts.append(f"eta {int(p.eta_seconds)}s")
        if p.stage_label:
            parts.append(p.stage_label)
        return "training  " + "  ".join(parts)
    return str(st)


async def _watch(ctl: LifecycleController, job_id: str | None = None) -> int:
    done = asyncio.Event()

    def _on_status(st: UnifiedStatus) -> None:
        print(f"[i] {_fmt_status(st)}", flush=True)
        if st.is_terminal:
            done.set()

    ctl.subscribe(_on_status)
    try:
        if job_id is not None:
            await ctl.start(job_id)
        await done.wait()
    finally:
        # Ctrl+C llega como cancelación: paramos local y remoto
        if not ctl.status.is_terminal:
            await ctl.stop()

    if ctl.status.kind is StatusKind.COMPLETED:
        if ctl.checkpoints is not None:
            for ck in ctl.checkpoints.models:
                print(f"    - {ck.name}")
        return 0
    if ctl.last_error:
        print(f"[!] {ctl.last_error}")
    return 1


async def _run(args) -> int:
    async with TrainingApiClient(base_url=args.server) as client:
        if args.cmd == "watch":
            return await _watch(LifecycleController(client), args.job_id)

        if args.cmd == "submit":
            payload = json.loads(Path(args.request).read_text(encoding="utf-8"))
            req = TrainingStartRequest.model_validate(payload)
            ctl = LifecycleController(client)
            job_id = await ctl.submit(req)
            print(f"[i] job {job_id} submitted")
            return await _watch(ctl)

        if args.cmd == "stop":
            resp = await client.stop_job(args.job_id)
            print(f"[i] stop requested: {resp}")
            return 0

        if args.cmd == "checkpoints":
            ckpts = await client.list_checkpoints()
            for ck in ckpts.models:
                print(ck.name)
            return 0

    return 2


def main():
    parser = argparse.ArgumentParser("trainwatch")
    parser.add_argument("--server", default=settings.API_BASE_URL, help="URL base del servidor")
    sub = parser.add_subparsers(dest="cmd")

    p_watch = sub.add_parser("watch", help="Sigue el progreso de un entrenamiento")
    p_watch.add_argument("job_id")

    p_submit = sub.add_parser("submit", help="Lanza un entrenamiento (JSON) y lo sigue")
    p_submit.add_argument("request", help="Ruta al JSON con la petición")

    p_stop = sub.add_parser("stop", help="Pide al servidor que pare un job")
    p_stop.add_argument("job_id")

    sub.add_parser("checkpoints", help="Lista los checkpoints entrenados")

    args = parser.parse_args()
    if not args.cmd:
        parser.print_help()
        # código 2 suele indicar 'uso incorrecto de CLI'
        return 2

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\n[i] Monitorización detenida por el usuario.")
        return 130
    except Exception as e:
        print(f"[!] Error: {e!r}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
