from sheafy.cli import run

run()
