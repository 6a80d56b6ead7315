
from dotenv import load_dotenv

# Load environment variables from .env as early as possible so modules
# which read os.environ at import-time get the configured values.
load_dotenv()

__version__ = "0.1.0"
