from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

MODEL_PATH = BASE_DIR / "models" / "model.json"
BACKUP_MODEL_PATH = BASE_DIR / "models" / "model_backup.json"
REPORT_PATH = BASE_DIR / "models" / "evaluation_report.json"

FORMAT_VERSION = 1

UNCATEGORIZED = "uncategorized"
UNKNOWN_CATEGORY = "unknown"

TRAINING_PAGE_SIZE = 100
EVALUATION_SAMPLE_CAP = 1000
MIN_EVALUATION_SAMPLES = 10
TRAIN_FRACTION = 0.8
CV_FOLDS = 5
