
from dotenv import load_dotenv

# Load environment variables from .env as early as possible so modules
# which read os.environ at import-time (settings, generator tunables) get
# the configured values.
load_dotenv()
