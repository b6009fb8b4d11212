from lucciole import create_app

app = create_app()
