from http import HTTPStatus

# Status code to reason phrase, ie. `404: "Not Found"`
HTTP_STATUS: dict[int, str] = {_.value: _.phrase for _ in HTTPStatus}

# EOF
