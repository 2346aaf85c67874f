from filecopy.worker.worker_main import run

run()
