from pull_request_opener.cli import app

app(prog_name="pro")
