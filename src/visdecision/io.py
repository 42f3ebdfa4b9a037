"""I/O helpers for loading session records and normalizing fields.

Session records come in a few shapes depending on where they were exported
from: pickled mappings (the default), MATLAB files (read with
scipy.io.loadmat), HDF5 files (read with h5py) and the multi-session
Steinmetz `.npz` archives. All of them are normalized into the `Session`
dataclass by `session_from_record`, which also enforces the length
invariants between trial-level and neuron-level fields.

Missing files and malformed records only drop the affected session when
loading through `load_sessions`; they never abort the whole load.
"""
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import pickle
import re

import h5py
import numpy as np
import scipy.io

from .session import DEFAULT_WINDOW, Session

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "mouse_name",
    "date_exp",
    "brain_area",
    "feedback_type",
    "contrast_left",
    "contrast_right",
    "spks",
)
OPTIONAL_FIELDS = ("bin_size", "stim_onset", "time")


class SessionIntegrityError(ValueError):
    """A session record is unreadable or violates the per-trial / per-neuron length invariants."""


def mat_struct_to_dict(obj: Any):
    """Recursively convert MATLAB structs (loaded with scipy) into Python types.

    Numeric arrays are kept as numpy arrays; object-dtype arrays (cell arrays)
    become lists and MATLAB structs become dicts.
    """
    if isinstance(obj, np.ndarray):
        if obj.dtype == 'O':
            return [mat_struct_to_dict(o) for o in obj]
        return obj
    elif hasattr(obj, '_fieldnames'):
        return {name: mat_struct_to_dict(getattr(obj, name)) for name in obj._fieldnames}
    return obj


def _get_field(record: Any, name: str, default=None):
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _as_str(value: Any) -> str:
    if value is None:
        return "unknown"
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, np.ndarray):
        if value.size == 0:
            return "unknown"
        return _as_str(value.flatten()[0])
    return str(value)


def _as_str_array(values: Any) -> np.ndarray:
    if values is None:
        return np.array([], dtype=str)
    arr = np.atleast_1d(np.asarray(values, dtype=object)).flatten()
    return np.array([v.decode() if isinstance(v, bytes) else str(v) for v in arr], dtype=str)


def _as_1d(values: Any, dtype) -> np.ndarray:
    if values is None:
        return np.array([], dtype=dtype)
    return np.atleast_1d(np.asarray(values, dtype=dtype)).flatten()


def _coerce_spks(raw: Any, n_trials: int, n_neurons: int) -> np.ndarray:
    """Return spike counts as a trials x neurons x bins float array.

    `raw` is either a per-trial sequence of (neurons, bins) matrices or a
    3-D array, neuron-major (neurons, trials, bins) as in the Steinmetz
    archives or already trials x neurons x bins. The 3-D layout is told
    apart by matching the leading axes against `n_trials` and `n_neurons`.
    """
    if raw is None:
        raise SessionIntegrityError("record has no spike data ('spks')")

    if isinstance(raw, np.ndarray) and raw.dtype != 'O':
        if raw.ndim != 3:
            raise SessionIntegrityError(f"3-D spike array expected, got shape {raw.shape}")
        neuron_major = raw.shape[:2] == (n_neurons, n_trials)
        trial_major = raw.shape[:2] == (n_trials, n_neurons)
        if neuron_major and trial_major:
            raise SessionIntegrityError(
                f"spike array layout is ambiguous: shape {raw.shape} with "
                f"n_trials == n_neurons == {n_trials}; store spks per trial instead"
            )
        spks = raw.astype(float)
        if neuron_major:
            spks = np.transpose(spks, (1, 0, 2))
    else:
        per_trial = []
        for mat in list(raw):
            mat = np.asarray(mat, dtype=float)
            if mat.ndim == 1:
                # single neuron rows get squeezed by some exporters
                if (n_neurons == 0 and mat.size) or (n_neurons and mat.size % n_neurons):
                    raise SessionIntegrityError(
                        f"1-D spike row of {mat.size} bins cannot be split over {n_neurons} neurons"
                    )
                mat = mat.reshape(n_neurons, -1) if n_neurons else mat.reshape(0, 0)
            per_trial.append(mat)
        if not per_trial:
            return np.zeros((0, n_neurons, 0), dtype=float)
        shapes = {m.shape for m in per_trial}
        if len(shapes) != 1:
            raise SessionIntegrityError(f"per-trial spike matrices differ in shape: {sorted(shapes)}")
        spks = np.stack(per_trial, axis=0)

    if spks.shape[0] != n_trials or spks.shape[1] != n_neurons:
        raise SessionIntegrityError(
            f"spike array shape {spks.shape} does not match "
            f"n_trials={n_trials}, n_neurons={n_neurons}"
        )
    return spks


def _crop_to_window(
    spks: np.ndarray,
    bin_size: Optional[float],
    stim_onset: float,
    window: Tuple[float, float],
) -> np.ndarray:
    """Keep only the bins inside `window` (seconds relative to stimulus onset).

    Without a bin size the record's bins are taken to span the window exactly.
    """
    if bin_size is None or spks.shape[2] == 0:
        return spks
    start = int(round((stim_onset + window[0]) / bin_size))
    stop = int(round((stim_onset + window[1]) / bin_size))
    if start < 0 or stop > spks.shape[2]:
        raise SessionIntegrityError(
            f"window {window} falls outside the recorded {spks.shape[2]} bins of {bin_size}s"
        )
    return spks[:, :, start:stop]


def _infer_bin_size(record: Any) -> Optional[float]:
    bin_size = _get_field(record, "bin_size")
    if bin_size is not None:
        return float(np.asarray(bin_size, dtype=float).flatten()[0])
    times = _get_field(record, "time")
    if times is None:
        return None
    if isinstance(times, np.ndarray) and times.dtype != 'O' and times.ndim == 1:
        first = times.astype(float)
    else:
        first = np.asarray(list(times)[0], dtype=float).flatten()
    if first.size < 2:
        return None
    return float(np.round(np.median(np.diff(first)), 9))


def session_from_record(
    record: Any, session_id: int, window: Tuple[float, float] = DEFAULT_WINDOW
) -> Session:
    """Validate a raw record (mapping or attribute object) and build a `Session`."""
    missing = [f for f in RECORD_FIELDS if _get_field(record, f) is None and f not in ("mouse_name", "date_exp")]
    if missing:
        raise SessionIntegrityError(f"session {session_id}: missing fields {missing}")

    try:
        feedback = _as_1d(_get_field(record, "feedback_type"), float)
        left = _as_1d(_get_field(record, "contrast_left"), float)
        right = _as_1d(_get_field(record, "contrast_right"), float)
    except (TypeError, ValueError) as exc:
        raise SessionIntegrityError(f"session {session_id}: non-numeric trial field: {exc}") from exc
    areas = _as_str_array(_get_field(record, "brain_area"))

    lengths = {"feedback_type": len(feedback), "contrast_left": len(left), "contrast_right": len(right)}
    if len(set(lengths.values())) != 1:
        raise SessionIntegrityError(f"session {session_id}: per-trial lengths differ {lengths}")
    n_trials = len(feedback)
    if n_trials == 0:
        raise SessionIntegrityError(f"session {session_id}: zero trials")
    bad = sorted(set(np.unique(feedback)) - {-1.0, 1.0})
    if bad:
        raise SessionIntegrityError(f"session {session_id}: feedback_type values {bad} outside {{-1, +1}}")

    try:
        spks = _coerce_spks(_get_field(record, "spks"), n_trials, len(areas))
        stim_onset = float(_get_field(record, "stim_onset", 0.0) or 0.0)
        spks = _crop_to_window(spks, _infer_bin_size(record), stim_onset, window)
    except SessionIntegrityError as exc:
        raise SessionIntegrityError(f"session {session_id}: {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise SessionIntegrityError(f"session {session_id}: malformed spike or timing data: {exc}") from exc

    return Session(
        session_id=int(session_id),
        mouse_name=_as_str(_get_field(record, "mouse_name")),
        date_exp=_as_str(_get_field(record, "date_exp")),
        brain_area=areas,
        feedback_type=feedback.astype(int),
        contrast_left=left,
        contrast_right=right,
        spks=spks,
        window=window,
    )


def _read_pickle(p: Path) -> Any:
    with p.open("rb") as f:
        try:
            return pickle.load(f)
        except ModuleNotFoundError:
            # pickles written with numpy>=2 reference 'numpy._core'
            f.seek(0)

            class RenamingUnpickler(pickle.Unpickler):
                def find_class(self, module, name):
                    if module.startswith("numpy._core"):
                        module = module.replace("numpy._core", "numpy.core")
                    return super().find_class(module, name)

            return RenamingUnpickler(f).load()


def _read_mat(p: Path) -> Dict[str, Any]:
    data = scipy.io.loadmat(str(p), struct_as_record=False, squeeze_me=True)
    data = {k: mat_struct_to_dict(v) for k, v in data.items() if not k.startswith('__')}
    for key in ("session", "data", "ans"):
        if key in data and isinstance(data[key], dict):
            return data[key]
    return data


def _read_h5(p: Path) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    with h5py.File(str(p), "r") as f:
        for name in RECORD_FIELDS + OPTIONAL_FIELDS:
            if name in f:
                record[name] = f[name][()]
            elif name in f.attrs:
                record[name] = f.attrs[name]
    return record


READERS = {
    ".pkl": _read_pickle,
    ".pickle": _read_pickle,
    ".mat": _read_mat,
    ".h5": _read_h5,
    ".hdf5": _read_h5,
}


def load_session(
    path: str, session_id: int, window: Tuple[float, float] = DEFAULT_WINDOW
) -> Session:
    """Load one session record from disk.

    Raises FileNotFoundError when the record is absent and
    SessionIntegrityError when it cannot be read or violates the length
    invariants.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Session file not found: {path}")
    reader = READERS.get(p.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported session format '{p.suffix}' for {path}")
    try:
        record = reader(p)
    except (pickle.UnpicklingError, EOFError, OSError, ValueError) as exc:
        raise SessionIntegrityError(f"unreadable record {p.name}: {exc}") from exc
    return session_from_record(record, session_id, window=window)


def load_sessions(
    paths: Sequence[str], window: Tuple[float, float] = DEFAULT_WINDOW, start_id: int = 1
) -> List[Session]:
    """Load every record in `paths`, skipping absent or malformed ones.

    Session ids follow the position in `paths` counted from `start_id`, so a
    skipped record leaves a gap instead of renumbering the sessions after it.
    """
    sessions = []
    for idx, path in enumerate(paths, start=start_id):
        try:
            sessions.append(load_session(path, idx, window=window))
        except FileNotFoundError:
            logger.warning('Session %d not found, skipping: %s', idx, path)
        except SessionIntegrityError as exc:
            logger.warning('Excluding session %d (%s): %s', idx, path, exc)
    logger.info('Loaded %d of %d sessions', len(sessions), len(paths))
    return sessions


def iter_npz_sessions(
    path: str, start_id: int = 1, window: Tuple[float, float] = DEFAULT_WINDOW
) -> Iterator[Session]:
    """Yield sessions from a Steinmetz-style `.npz` archive (key 'dat').

    Malformed entries are reported and skipped; ids still advance.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Session archive not found: {path}")
    dat = np.load(str(p), allow_pickle=True)['dat']
    for offset, record in enumerate(dat):
        sid = start_id + offset
        try:
            yield session_from_record(record, sid, window=window)
        except SessionIntegrityError as exc:
            logger.warning('Excluding session %d from %s: %s', sid, p.name, exc)


def _natural_key(p: Path):
    return [int(tok) if tok.isdigit() else tok.lower() for tok in re.split(r"(\d+)", p.name)]


def discover_session_files(data_dir: str, pattern: str = "session*.pkl") -> List[Path]:
    """Return the files in `data_dir` matching `pattern`, in natural numeric order."""
    d = Path(data_dir)
    if not d.exists():
        raise FileNotFoundError(f"Data folder not found: {data_dir}")
    return sorted(d.glob(pattern), key=_natural_key)


def save_session_record(session: Session, path: str) -> None:
    """Write a session back out as a pickled record mapping."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    record = {
        "mouse_name": session.mouse_name,
        "date_exp": session.date_exp,
        "brain_area": list(session.brain_area),
        "feedback_type": np.array(session.feedback_type),
        "contrast_left": np.array(session.contrast_left),
        "contrast_right": np.array(session.contrast_right),
        "spks": [np.array(m) for m in session.spks],
    }
    with p.open("wb") as f:
        pickle.dump(record, f)
