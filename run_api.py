#!/usr/bin/env python3
"""
Simple script to run the ItemRadar Match API server from the root directory.
This script runs api/main.py as a module with the project root on PYTHONPATH.
"""

import os
import sys
import subprocess
import argparse

def main():
    parser = argparse.ArgumentParser(description='Run ItemRadar Match API Server')
    parser.add_argument('--port', type=int, default=8000, help='Port to run the server on')
    args = parser.parse_args()

    current_dir = os.getcwd()
    api_main = os.path.join(current_dir, 'api', 'main.py')

    if not os.path.exists(api_main):
        print(f"❌ API entry point not found: {api_main}")
        sys.exit(1)

    # Set the PYTHONPATH to include the project root
    env = os.environ.copy()
    env['PYTHONPATH'] = current_dir + os.pathsep + env.get('PYTHONPATH', '')

    cmd = [sys.executable, '-m', 'api.main', '--port', str(args.port)]

    print(f"🚀 Starting ItemRadar Match API server on port {args.port}...")
    print(f"🔧 Command: {' '.join(cmd)}")
    print("Press Ctrl+C to stop the server")

    try:
        subprocess.run(cmd, env=env, cwd=current_dir)
    except KeyboardInterrupt:
        print("\n🛑 Server stopped by user")
    except Exception as e:
        print(f"❌ Error running server: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
