from wsveil.cli.main import run

run()
