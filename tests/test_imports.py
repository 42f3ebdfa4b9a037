def test_basic_imports():
    import importlib
    import sys
    from pathlib import Path

    # scripts/ is not a package; make the repository root importable
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    importlib.import_module('visdecision')
    importlib.import_module('visdecision.pipeline')
    importlib.import_module('visdecision.report')
    # ensure the runner scripts are syntactically valid
    importlib.import_module('scripts.run_pipeline')
    importlib.import_module('scripts.inspect_session')
