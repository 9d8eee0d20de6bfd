"""
Serverless entry point.

Builds the application once per cold start; the MongoDB client is created
lazily on first use and reused across invocations.
"""

import os
from app import create_app

# Serverless platforms look for a WSGI callable named 'app'
app = create_app()

if __name__ == "__main__":
    app.run(debug=False, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
