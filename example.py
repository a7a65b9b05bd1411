import enlighten

app = enlighten.Enlighten(enlighten.AppConfig(port=8080, log_level="debug"))


class Greeter:
    def __init__(self, request: enlighten.Request):
        self.request = request

    def greet(self, name: str) -> str:
        return f"Hello, {name} ({self.request.method})"


app.register_controller(Greeter)
app.get("/hello/{name}", "Greeter@greet")


@app.route("/")
def home(response: enlighten.Response):
    response.add_header("X-Example", "1")
    return "Hello World"


@app.post(r"/items/{id:\d+}")
def update_item(id: str, request: enlighten.Request):
    return f"item {id}: {request.post_data()!r}"


@app.on_exception
def show_error(ex: Exception, response: enlighten.Response):
    response.set_body(f"<pre>{ex!r}</pre>")


def main():
    """Program entry point."""
    app.serve_forever()


if __name__ == "__main__":
    main()
