"""Simple CLI to inspect one session record and produce a JSON summary + a PNG.

Usage: python scripts/inspect_session.py path/to/session.pkl outputs/
"""

import sys
from pathlib import Path
import json
import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from visdecision.io import load_session
from visdecision.summary import summarize_session


def main(argv):
    if len(argv) < 3:
        print("Usage: inspect_session.py path/to/session.pkl output_dir")
        return 2
    path = Path(argv[1])
    outdir = Path(argv[2])
    outdir.mkdir(parents=True, exist_ok=True)

    session = load_session(str(path), session_id=1)
    summary = summarize_session(session)
    with (outdir / "session_summary.json").open("w") as f:
        json.dump(summary, f, indent=2)

    # Population spike count per bin, averaged over trials
    psth = session.spks.sum(axis=1).mean(axis=0) if session.n_neurons else []
    plt.figure(figsize=(6, 4))
    if len(psth):
        times = session.window[0] + session.bin_size * (np.arange(len(psth)) + 0.5)
        plt.plot(times, psth)
    plt.xlabel("Time from stimulus onset (s)")
    plt.ylabel("Spikes per bin (all neurons)")
    plt.title(f"{summary['mouse_name']} {summary['date_exp']} ({summary['n_neurons']} neurons)")
    plt.tight_layout()
    plt.savefig(outdir / "population_psth.png", dpi=120)
    print("Wrote", outdir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
