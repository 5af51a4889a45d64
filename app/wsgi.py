from app.jobboard import create_app

app = create_app()
